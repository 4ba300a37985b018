"""Usage: python -m memongo [command] [options]"""

from memongo.cli.parser import main

if __name__ == "__main__":
    main()
