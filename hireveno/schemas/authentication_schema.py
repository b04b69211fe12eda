from pydantic import BaseModel

class DecodedAccessToken(BaseModel):
    """
    Decoded access token data, as issued by the auth provider
        Args:
        - sub (str): User ID
        - email (str): User email
        - exp (int): Token expiration time
    """
    sub: str
    email: str
    exp: int
