import sys

from rental_radar.run import main

sys.exit(main())
