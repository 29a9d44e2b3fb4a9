# src/jewelrate/__main__.py
"""Module entry point: python -m jewelrate"""

from jewelrate.app import main

if __name__ == "__main__":
    main()
