"""Allow running the package as a module: python -m vault_invariants"""

import sys

from vault_invariants.cli import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
