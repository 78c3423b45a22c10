from fusebridge.cli import main

main()
