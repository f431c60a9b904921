# Routes package init
"""
RecipeShare Backend - API Routes Package
==========================================

Route Inventory:
    - recipes.py: POST   /api/recipes            (create, multipart)
                  GET    /api/recipes            (published listing)
                  GET    /api/recipes/author     (caller's recipes, drafts included)
                  GET    /api/recipes/{id}       (detail)
                  PUT    /api/recipes/{id}       (partial update, multipart)
                  DELETE /api/recipes/{id}       (delete)
    - health.py:  GET    /health                 (service health check)

Routes stay thin: extract request data, call a service, shape the response.
"""
