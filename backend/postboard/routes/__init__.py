# Routes package init
"""
Postboard Backend — API Routes Package
=======================================

Route Inventory:
    - auth.py:    POST /auth/signup, POST /auth/login
    - posts.py:   GET /posts, GET /posts/{user_id},
                  POST /posts, PUT /posts/{post_id}, DELETE /posts/{post_id}
    - health.py:  GET  /health

Routes stay thin: parse the request, call a service, return a schema.
"""
