# Domain layer - bundled seed datasets, one per GraphDomain
