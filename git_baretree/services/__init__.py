"""Services for git-baretree: the migration engine and its collaborators."""
