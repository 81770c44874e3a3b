from sqlalchemy.orm import declarative_base

# Shared declarative base for every model in the project
Base = declarative_base()
