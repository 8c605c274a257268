from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional

from targeting.core import Shot
from targeting.learning import BattleMove


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())


class CellModel(BaseModel):
    row: int = Field(ge=0, strict=True)
    col: int = Field(ge=0, strict=True)


class ShotModel(CellModel):
    hit: bool = Field(strict=True)

    def to_shot(self) -> Shot:
        return Shot(self.row, self.col, self.hit)


class MoveRequest(CamelModel):
    model: str = Field(min_length=1, max_length=100)
    previous_shots: List[ShotModel] = Field(default_factory=list, alias='previousShots')
    # None - размер поля из конфигурации приложения
    grid_size: Optional[int] = Field(default=None, ge=2, le=26, alias='gridSize')
    use_advisor: bool = Field(default=False, alias='useAdvisor')

    @model_validator(mode='after')
    def shots_inside_grid(self):
        if self.grid_size is None:
            return self
        for shot in self.previous_shots:
            if shot.row >= self.grid_size or shot.col >= self.grid_size:
                raise ValueError(f"Выстрел ({shot.row}, {shot.col}) вне поля {self.grid_size}x{self.grid_size}")
        return self

    def shots(self) -> List[Shot]:
        return [s.to_shot() for s in self.previous_shots]


class MoveRecord(CamelModel):
    model: str = Field(min_length=1, max_length=100)
    move_number: int = Field(ge=1, alias='moveNumber')
    row: int = Field(ge=0, le=25)
    col: int = Field(ge=0, le=25)
    hit: bool = Field(strict=True)
    was_follow_up: bool = Field(default=False, alias='wasFollowUp')
    previous_hits: List[CellModel] = Field(default_factory=list, alias='previousHits')

    def to_battle_move(self) -> BattleMove:
        return BattleMove(self.row, self.col, self.hit, self.was_follow_up)

    def to_record(self) -> dict:
        return {
            'model': self.model,
            'move_number': self.move_number,
            'row': self.row,
            'col': self.col,
            'hit': self.hit,
            'was_follow_up': self.was_follow_up,
            'previous_hits': [{'row': c.row, 'col': c.col} for c in self.previous_hits],
        }


class SaveMoveRequest(MoveRecord):
    battle_id: int = Field(ge=1, alias='battleId')


class SaveBattleRequest(CamelModel):
    model_a: str = Field(min_length=1, max_length=100, alias='modelA')
    model_b: str = Field(min_length=1, max_length=100, alias='modelB')
    winner: str = Field(min_length=1, max_length=100)
    accuracy_a: int = Field(default=0, ge=0, le=100, alias='accuracyA')
    accuracy_b: int = Field(default=0, ge=0, le=100, alias='accuracyB')
    hits_a: int = Field(default=0, ge=0, alias='hitsA')
    hits_b: int = Field(default=0, ge=0, alias='hitsB')
    misses_a: int = Field(default=0, ge=0, alias='missesA')
    misses_b: int = Field(default=0, ge=0, alias='missesB')
    moves: List[MoveRecord] = Field(default_factory=list)

    @model_validator(mode='after')
    def participants_only(self):
        players = (self.model_a, self.model_b)
        if self.model_a == self.model_b:
            raise ValueError("Модели в партии должны различаться")
        if self.winner not in players:
            raise ValueError(f"Победитель {self.winner!r} не участвовал в партии")
        for move in self.moves:
            if move.model not in players:
                raise ValueError(f"Ход #{move.move_number} сделан моделью {move.model!r} вне партии")
        return self


class SimulateBattleRequest(CamelModel):
    model_a: str = Field(min_length=1, max_length=100, alias='modelA')
    model_b: str = Field(min_length=1, max_length=100, alias='modelB')
    seed: Optional[int] = None

    @model_validator(mode='after')
    def distinct_models(self):
        if self.model_a == self.model_b:
            raise ValueError("Модели в партии должны различаться")
        return self


class HyperparametersRequest(CamelModel):
    learning_rate: float = Field(gt=0, lt=1, alias='learningRate')
    discount_factor: float = Field(gt=0, lt=1, alias='discountFactor')
    exploration_rate: float = Field(ge=0, le=1, alias='explorationRate')
