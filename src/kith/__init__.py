"""Contact curation: relationship sync between note bodies and vCard-style metadata."""
