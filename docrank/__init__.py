"""DocRank: tenant-scoped hybrid document retrieval."""
