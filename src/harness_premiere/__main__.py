from harness_premiere.cli.main import main

if __name__ == "__main__":
    main()
