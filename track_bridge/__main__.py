import sys

from track_bridge.bridge import main

sys.exit(main())
