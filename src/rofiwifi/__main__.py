from rofiwifi.cli import main

main()
