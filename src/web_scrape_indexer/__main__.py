import sys

from web_scrape_indexer.cli import main

sys.exit(main())
