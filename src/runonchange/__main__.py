from runonchange.cli import main

main()
