"""Allow ``python -m codeweave_mcp``."""
from codeweave_mcp.mcp.server import main

if __name__ == "__main__":
    main()
