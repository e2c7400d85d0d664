from harness_magick.cli.main import main

main()
