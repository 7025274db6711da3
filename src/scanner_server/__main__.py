from scanner_server.cli import main

main()
