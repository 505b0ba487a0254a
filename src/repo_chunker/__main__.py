from repo_chunker.cli import main

raise SystemExit(main())
