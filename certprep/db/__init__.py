# Database layer
