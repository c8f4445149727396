from health_checker.main import main

raise SystemExit(main())
