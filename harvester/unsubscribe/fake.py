"""
Synthetic addresses for cover traffic.
"""

import random
from typing import Optional

FIRST_NAMES = [
    'james', 'mary', 'robert', 'patricia', 'john', 'jennifer', 'michael', 'linda',
    'david', 'elizabeth', 'william', 'barbara', 'richard', 'susan', 'joseph', 'jessica',
    'thomas', 'sarah', 'carlos', 'karen', 'daniel', 'lisa', 'matthew', 'nancy',
    'anthony', 'maria', 'mark', 'sandra', 'jose', 'ashley', 'luis', 'sofia',
]

LAST_NAMES = [
    'smith', 'johnson', 'williams', 'brown', 'jones', 'garcia', 'miller', 'davis',
    'rodriguez', 'martinez', 'hernandez', 'lopez', 'gonzalez', 'wilson', 'anderson',
    'thomas', 'taylor', 'moore', 'jackson', 'martin', 'lee', 'perez', 'thompson',
    'white', 'harris', 'sanchez', 'clark', 'ramirez', 'lewis', 'robinson',
]

FAKE_EMAIL_DOMAIN = 'utsa.edu'


def fake_email(rng: Optional[random.Random] = None, domain: str = FAKE_EMAIL_DOMAIN) -> str:
    """Generate a plausible first.last@[my.]domain address."""
    rng = rng or random
    prefix = 'my.' if rng.random() < 0.5 else ''
    return f"{rng.choice(FIRST_NAMES)}.{rng.choice(LAST_NAMES)}@{prefix}{domain}".lower()
