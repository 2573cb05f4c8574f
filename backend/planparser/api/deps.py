from fastapi import Request

from planparser.services.container import ParserServices


def get_services(request: Request) -> ParserServices:
    return request.app.state.services
