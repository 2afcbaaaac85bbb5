import sys

from chip8vm.main import main

sys.exit(main())
