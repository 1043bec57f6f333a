from flask_restx import Api

# Initialize API with Swagger documentation
api = Api(
    version='1.0',
    title='CodeCollab API',
    description='API for collaborative coding sessions and their version history',
    doc='/docs',
    prefix='/api/v1'
)
