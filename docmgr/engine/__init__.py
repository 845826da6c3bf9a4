"""docmgr Engine — config, errors, logging, sessions, identity, activity ledger, text assist."""
