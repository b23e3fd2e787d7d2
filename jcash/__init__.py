"""JCash backend infrastructure.

Declares the JCash backend on AWS with the CDK:
- Isolated VPC with public and private-isolated subnet tiers
- Aurora Serverless PostgreSQL cluster with a generated credential secret
- Secrets Manager interface endpoint for private access to the secret
- Lambda functions scoped to read exactly that secret
- API Gateway front door
"""

__version__ = "0.1.0"
