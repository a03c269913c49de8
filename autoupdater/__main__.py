from autoupdater.supervisor.cli import main

main()
