from hapbench.cli import main

raise SystemExit(main())
