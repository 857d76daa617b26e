"""paraexec 入口点。

支持: python -m paraexec
"""

from .app import main

if __name__ == "__main__":
    main()
