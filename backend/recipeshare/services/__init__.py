# Services package init
"""
RecipeShare Backend - Services Layer
======================================

Service Inventory:
    - ImageService:       image validation and derivative rendering (Pillow)
    - ObjectStoreClient:  blob upload/delete over S3 (boto3)
    - RecipeStore:        recipe rows, including transaction-scoped callbacks
    - RecipePipeline:     create/update/delete orchestration and compensation
    - RecipeQueryService: listings and detail view
    - recipe_form:        multipart decoding into typed recipe fields

Services are built once in create_app() and kept on app.state; routes reach
them through small dependency functions.
"""
