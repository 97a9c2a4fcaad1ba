import secrets

PIN_LENGTH = 6
_PIN_SPACE = 10 ** PIN_LENGTH


def generate_pin() -> str:
    """Одноразовый PIN выдачи: 6 цифр с ведущими нулями, равномерно из 000000-999999.

    Только CSPRNG (secrets). Ошибка источника энтропии пробрасывается наверх без повторов.
    """
    return f"{secrets.randbelow(_PIN_SPACE):0{PIN_LENGTH}d}"
