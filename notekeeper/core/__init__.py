# Core infrastructure: config, logging, database, resilience
