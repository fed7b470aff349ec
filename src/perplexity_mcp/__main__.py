import sys

from perplexity_mcp.cli import main

sys.exit(main())
