# Background and maintenance tasks
