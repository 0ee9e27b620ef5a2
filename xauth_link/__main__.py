import sys

from xauth_link.cli import main

if __name__ == "__main__":
    sys.exit(main())
