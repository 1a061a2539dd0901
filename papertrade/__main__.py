from papertrade.main import main

raise SystemExit(main())
