from crossbox.cli.main import main

main()
