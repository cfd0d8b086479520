from seance_dist.cli import main

raise SystemExit(main())
