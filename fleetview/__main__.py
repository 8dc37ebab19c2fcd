from fleetview.cli import main

main()
