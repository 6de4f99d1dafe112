from mailmirror.cli.backup_once import main

raise SystemExit(main())
