import sys

from cimis_irrigation.main import main


sys.exit(main())
