# fleet_datafeed/__main__.py

from fleet_datafeed.cli import main

main()
