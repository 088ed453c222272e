from flask import current_app

from starhub.models import User
from starhub.services.credits import spend_credits

GAMES_CONFIG = {
    1: {'name': 'Space Shooter', 'description': 'Defend against waves of enemies in space', 'paid': False},
    2: {'name': 'Space Snake', 'description': 'Classic snake game in space', 'paid': True},
    3: {'name': 'Memory Match', 'description': 'Match pairs of Star Atlas cards', 'paid': True},
    4: {'name': 'Star Atlas Quiz', 'description': 'Test your knowledge of the Star Atlas universe', 'paid': True},
    5: {'name': 'Puzzle Master', 'description': 'Solve challenging Star Atlas puzzles', 'paid': True},
    6: {'name': 'Resource Runner', 'description': 'Collect resources while avoiding obstacles', 'paid': True},
}

GAME_IDS = tuple(sorted(GAMES_CONFIG))


class UnknownGame(ValueError):
    def __init__(self, game_id):
        super().__init__(f'Invalid game ID: {game_id!r}. Must be between 1 and 6')
        self.game_id = game_id


def check_game_id(game_id) -> int:
    if isinstance(game_id, bool) or not isinstance(game_id, int) or game_id not in GAMES_CONFIG:
        raise UnknownGame(game_id)
    return game_id


def game_name(game_id: int) -> str:
    return GAMES_CONFIG.get(game_id, {}).get('name') or f'Game {game_id}'


def game_cost(game_id: int) -> int:
    check_game_id(game_id)
    if not GAMES_CONFIG[game_id]['paid']:
        return 0
    return int(current_app.config.get('GAME_COST', 1))


def catalog():
    return {
        str(gid): {
            'name': cfg['name'],
            'description': cfg['description'],
            'cost': game_cost(gid),
        }
        for gid, cfg in GAMES_CONFIG.items()
    }


def start_play(user: User, game_id: int) -> int:
    """Charge the play cost for a game. Returns the amount charged.

    Raises InsufficientCredits when the user cannot afford the game; in
    that case nothing is written.
    """
    cost = game_cost(game_id)
    if cost:
        spend_credits(user, cost, f'{game_name(game_id)} - Game Started')
    current_app.logger.info(f"[play-start] user={user.id} game={game_id} cost={cost}")
    return cost
