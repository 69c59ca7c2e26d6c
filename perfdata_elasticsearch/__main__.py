import sys

from perfdata_elasticsearch import main

sys.exit(main())
