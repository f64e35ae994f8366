from taskloom.cli.main import main

main()
