"""HTTP client, errors and data models for the panel's remote API."""