"""Function-calling tool definitions offered to the chat model, and font choices."""

_WEATHER_DESCRIPTION = (
    "查询指定地点的天气信息,地点必须是中文，不能是英文！"
    "需要剥离出省份信息放到sheng参数里面,并且需要剥离出地点的信息放到place参数里面"
)
_SEARCH_DESCRIPTION = (
    "The function sends a query to the browser and returns relevant results based on the "
    "search terms provided. The model should avoid using this function if it already possesses "
    "the required information or can provide a confident answer without external data"
)
_TRANSFORM_DESCRIPTION = "对输入的文字进行艺术变形处理，支持多种变形样式如花体字、艺术字等，可以用于装饰性文字展示"

DEFAULT_FONT = "dongfangdakai"

FONT_NAMES = {
    "dongfangdakai": "dongfangdakai",
    "puhuiti": "puhuiti_m",
    "shuheiti": "shuheiti",
    "jinbu": "jinbu1",
    "kuhei": "kuheti1",
    "kuailei": "kuailei1",
    "wenyiti": "wenyiti1",
    "logoti": "logoti",
    "cangeryuyangti": "cangeryuyangti_m",
    "siyuansongti": "siyuansongti_b",
    "siyuanheiti": "siyuanheiti_m",
    "fangzhengkaiti": "fangzhengkaiti",
    "flower": "dongfangdakai",
    "art": "puhuiti_m",
    "gothic": "siyuanheiti_m",
    "modern": "siyuansongti_b",
}

# A custom font file and a preset font name are never sent together.
CUSTOM_FONT_URLS = {
    "custom_font1": "https://example.com/fonts/custom1.ttf",
    "custom_font2": "https://example.com/fonts/custom2.ttf",
}


def _param(description):
    return {"description": description, "type": "string"}


def _tool(description, name, parameters, required):
    return {
        "function": {
            "description": description,
            "name": name,
            "parameters": parameters,
            "required": required,
        },
        "type": "function",
    }


def tool_definitions(include_transform=True):
    """Return fresh tool definitions; the text transform tool only when asked for."""
    tools = [
        _tool(_WEATHER_DESCRIPTION, "queryWeather", {"sheng": "", "place": ""}, ["sheng", "place"]),
        _tool(
            _SEARCH_DESCRIPTION,
            "searchOnline",
            {"query": _param("What to search for")},
            ["query"],
        ),
        _tool(
            "Generate an image based on a given prompt",
            "generateImage",
            {"prompt": _param("A text prompt describing the image to be generated")},
            ["prompt"],
        ),
    ]
    if include_transform:
        tools.append(
            _tool(
                _TRANSFORM_DESCRIPTION,
                "transformText",
                {
                    "text": _param("需要进行变形处理的文字内容"),
                    "Prompt": _param("艺术字风格描述提示词"),
                    "style": _param("变形样式，如flower(花体)、art(艺术字)、gothic(哥特体)等"),
                },
                ["text"],
            )
        )
    return tools


def font_name_for(style):
    """Return the preset font for ``style``, falling back to the default font."""
    return FONT_NAMES.get(style, DEFAULT_FONT)


def ttf_url_for(style):
    """Return the custom font file URL for ``style``, or an empty string."""
    return CUSTOM_FONT_URLS.get(style, "")