"""
Inline keyboards used by the chat handlers.
URL buttons are only added when the corresponding link is configured.
"""

from typing import List, Optional

from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from svitlo.config import SPONSOR_LINK, AD_INFO_LINK
from svitlo.records import AdItem, City, Queue, SelectedQueue


def _sponsor_row() -> List[List[InlineKeyboardButton]]:
    if not SPONSOR_LINK:
        return []
    return [[InlineKeyboardButton(text="🤝 Стати спонсором", url=SPONSOR_LINK)]]


def alerts_button(alerts_enabled: bool) -> InlineKeyboardButton:
    label = "🔔 Алерти: увімкн." if alerts_enabled else "🔕 Алерти: вимкн."
    return InlineKeyboardButton(text=label, callback_data="alerts_toggle")


def build_main_queue_keyboard(alerts_enabled: bool) -> InlineKeyboardMarkup:
    buttons = [
        [InlineKeyboardButton(text="🔄 Оновити", callback_data="refresh")],
        [InlineKeyboardButton(text="⭐ Зберегти", callback_data="save")],
        [alerts_button(alerts_enabled)],
        [InlineKeyboardButton(text="📋 Мої черги", callback_data="my")],
    ]
    return InlineKeyboardMarkup(inline_keyboard=buttons + _sponsor_row())


def build_saved_queue_keyboard(index: int, alerts_enabled: bool) -> InlineKeyboardMarkup:
    """Keyboard under a saved queue opened from the list: refresh, delete, alerts."""
    buttons = [
        [InlineKeyboardButton(text="🔄 Оновити", callback_data="refresh")],
        [InlineKeyboardButton(text="❌ Видалити", callback_data=f"del|{index}")],
        [alerts_button(alerts_enabled)],
    ]
    return InlineKeyboardMarkup(inline_keyboard=buttons + _sponsor_row())


def build_start_keyboard() -> InlineKeyboardMarkup:
    buttons = [[InlineKeyboardButton(text="⭐ Мої черги", callback_data="my")]]
    return InlineKeyboardMarkup(inline_keyboard=buttons + _sponsor_row())


def build_cities_keyboard(cities: List[City]) -> InlineKeyboardMarkup:
    buttons = [
        [InlineKeyboardButton(text=city.name, callback_data=f"city|{i}")]
        for i, city in enumerate(cities)
    ]
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def build_queues_keyboard(queues: List[Queue]) -> InlineKeyboardMarkup:
    buttons = [
        [InlineKeyboardButton(text=queue.name, callback_data=f"queue|{i}")]
        for i, queue in enumerate(queues)
    ]
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def build_retry_queues_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🔁 Спробувати ще раз", callback_data="retry_city_queues")]
    ])


def build_saved_list_keyboard(saved: List[SelectedQueue]) -> InlineKeyboardMarkup:
    buttons = [
        [InlineKeyboardButton(text=f"{item.city_name} | {item.queue_name}", callback_data=f"show|{i}")]
        for i, item in enumerate(saved)
    ]
    return InlineKeyboardMarkup(inline_keyboard=buttons + _sponsor_row())


def build_ad_keyboard() -> Optional[InlineKeyboardMarkup]:
    row = []
    if SPONSOR_LINK:
        row.append(InlineKeyboardButton(text="🤝 Стати спонсором", url=SPONSOR_LINK))
    if AD_INFO_LINK:
        row.append(InlineKeyboardButton(text="📢 Тут може бути ваша реклама", url=AD_INFO_LINK))
    return InlineKeyboardMarkup(inline_keyboard=[row]) if row else None


# --- Admin ---

def build_admin_keyboard(ads_enabled: bool) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(
            text="⛔ Вимкнути рекламу" if ads_enabled else "✅ Увімкнути рекламу",
            callback_data="admin|toggle_ad",
        )],
        [
            InlineKeyboardButton(text="➖ Частота рідше", callback_data="admin|freq_down"),
            InlineKeyboardButton(text="➕ Частота частіше", callback_data="admin|freq_up"),
        ],
        [InlineKeyboardButton(text="🗂 Керування рекламою", callback_data="admin|ads_menu")],
        [InlineKeyboardButton(text="🚫 Whitelist меню", callback_data="admin|wl_menu")],
        [InlineKeyboardButton(text="📈 Статистика", callback_data="admin|stats")],
        [InlineKeyboardButton(text="🔙 Закрити", callback_data="admin|close")],
    ])


def build_ads_menu_keyboard(items: List[AdItem]) -> InlineKeyboardMarkup:
    buttons = [
        [InlineKeyboardButton(text="➕ Додати текст", callback_data="admin|add_ad_text")],
        [InlineKeyboardButton(text="➕ Додати медіа", callback_data="admin|add_ad_media")],
        [InlineKeyboardButton(text="🗑 Очистити все", callback_data="admin|clear_ads")],
    ]
    # Two delete buttons per row, first 12 items only
    shown = items[:12]
    for i in range(0, len(shown), 2):
        row = [InlineKeyboardButton(text=f"❌ {i + 1}", callback_data=f"admin|ad_del|{shown[i].id}")]
        if i + 1 < len(shown):
            row.append(InlineKeyboardButton(text=f"❌ {i + 2}", callback_data=f"admin|ad_del|{shown[i + 1].id}"))
        buttons.append(row)
    buttons.append([InlineKeyboardButton(text="🔙 Назад", callback_data="admin")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def build_whitelist_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [
            InlineKeyboardButton(text="➕ Додати ID", callback_data="admin|wl_add"),
            InlineKeyboardButton(text="➖ Видалити ID", callback_data="admin|wl_del"),
        ],
        [InlineKeyboardButton(text="🔙 Назад", callback_data="admin")],
    ])


def build_back_to_admin_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🔙 Назад", callback_data="admin")]
    ])
