"""CDK stacks and constructs for the JCash backend."""
